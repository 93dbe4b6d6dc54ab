"""Logging, memory and platform helpers"""
