"""Qt widgets hosting the settings engine."""
