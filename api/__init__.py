"""HTTP front end for the meeting attendant."""
