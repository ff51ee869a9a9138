"""
Document processing: chunking, embedding, enrichment strategies, and the
chunk/document persistence helpers shared by every stage.
"""
