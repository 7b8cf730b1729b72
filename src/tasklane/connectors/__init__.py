"""Front-ends that drive the engine (console REPL, background reminders)."""
