"""Domain packages: documents, collectibles, listing"""
