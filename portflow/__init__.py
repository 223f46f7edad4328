"""
Portflow - host network exposure and container inventory.
Listening sockets, NAT/port-forward rules, SSH tunnels and workloads from
Docker, Podman and Kubernetes, gathered from the output of system tools.
"""
__version__ = "1.2.0"
