from .dialog_manager import DialogManager, DialogResult, DialogState

__all__ = ['DialogManager', 'DialogResult', 'DialogState']
