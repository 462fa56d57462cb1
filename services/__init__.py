"""
Services Module: external collaborators of the dialog engine
- transport: inbound/outbound messages and identity normalization
- store: users, assignments, status rows and submissions
- storage, report, grading, broadcaster, reminders, pdf_converter
"""

from .container import BotServices, create_services

__all__ = ['BotServices', 'create_services']
