"""Outlook Search: unified, cancellable search over Outlook desktop and Microsoft Graph."""
