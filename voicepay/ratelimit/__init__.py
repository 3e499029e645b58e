"""Token-bucket admission control with interchangeable storage backends."""
