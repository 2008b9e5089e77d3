"""SSH session lifecycle, command channels and file transfer"""
