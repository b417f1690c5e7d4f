"""HTTP transport for the question-answering pipeline."""
