"""
Shared helpers: exceptions, command decorators and polling.
"""
