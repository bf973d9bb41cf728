"""Booking & availability engine: slots, conflicts, bookings, basket, checkout."""
