"""Core domain package for chatterbox.

Core contains routing, intent parsing, rebroadcast rules, and the mailbox
workers without any Telegram or storage-specific code, keeping the business
logic portable.
"""
