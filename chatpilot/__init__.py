"""chatpilot: answers chat messages for you by watching the screen."""
