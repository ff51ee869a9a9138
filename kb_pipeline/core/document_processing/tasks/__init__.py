"""Document processing tasks: chunking, embedding, and context resolution."""
