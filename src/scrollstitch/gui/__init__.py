"""Qt integration"""
