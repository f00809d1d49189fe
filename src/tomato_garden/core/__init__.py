"""Core contracts shared by the task subsystem and the front ends."""
