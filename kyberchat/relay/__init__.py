# Relay core
#
# Provides:
#  - connection registry and user directory (session store)
#  - pairing state machine for one-to-one chats
#  - opaque payload relay and directory broadcasts
#
# See kyberchat/relay/node.py for the app entry point.
