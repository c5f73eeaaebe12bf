"""Customer engagement automation core"""
