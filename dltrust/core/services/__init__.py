"""
Verification services: version resolution, checksum tiers, signatures.
"""
