"""Pure domain logic: calendar values, slot generation and the booking lifecycle."""
