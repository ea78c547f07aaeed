"""
Agent Flow Builder backend modules
"""
