"""
Customers module: customer records with their site addresses.
"""
