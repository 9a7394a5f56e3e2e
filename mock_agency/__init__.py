"""
Mock Delivery Agency - a COD delivery agency test double
"""
__version__ = "1.0.0"
