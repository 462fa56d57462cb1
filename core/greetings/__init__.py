"""
Greetings Module: greeting, menu and help text
"""

from .greeting_handler import GreetingHandler, greeting_handler

__all__ = ['GreetingHandler', 'greeting_handler']
