"""
zkchannel core: field arithmetic, keys, canonical encoding, records, errors.
"""
