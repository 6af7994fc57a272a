"""Session model, outbound elements and the message bus."""
