"""
Delivery orders from ERPNext with M-Pesa STK push collection.
"""

__version__ = "1.0.0"
