"""The sink itself: writer thread, rotation, recovery, timers and signals."""
