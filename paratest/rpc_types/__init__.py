from paratest.rpc_types.substrate import Hash32, Header, NetworkState, RuntimeVersion

__all__ = ["Hash32", "Header", "NetworkState", "RuntimeVersion"]
