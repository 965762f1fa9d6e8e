"""Chat backend relaying streamed completions, with a transcript-building client."""
