"""Terminal client: display, slash commands, surfaces and the prompt loop."""
