__git_hash__ = ""
__version__ = "0+unknown"
