"""
handlers/ - Conversation Handlers

Contains:
- conversation.py: ConversationEngine, entry point for every inbound event
- menu_handler.py: MenuAction, callback data codec, keyboards, button dispatch
- dialogue_handler.py: user dialogue steps (buy, sell, gift card, payout)
- admin_handler.py: admin settings wizards, approve / reject
"""
