"""
Bridge core: value keys, topic derivation, endpoint registry,
subscriptions and publishing.
"""
