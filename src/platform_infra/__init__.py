"""
Platform infrastructure provisioning
Network, database and container compute stacks composed per environment
"""
__version__ = "1.0.0"
