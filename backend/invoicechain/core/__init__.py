"""Core utilities: logging, exceptions, security"""
