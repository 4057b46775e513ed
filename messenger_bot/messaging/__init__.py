"""Messenger dispatch core: inbound classification, conversation flow, broadcast templates, outbound rendering."""
