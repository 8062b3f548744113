"""
EMS authorization core
"""
