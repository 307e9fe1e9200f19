"""
Aqua Assist - REST API Module
"""
