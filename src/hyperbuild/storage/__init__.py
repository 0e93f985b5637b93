"""
Local content-addressable storage: blobs and image records.
"""
