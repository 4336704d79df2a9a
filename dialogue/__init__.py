"""
Curriculum chat core - platform-agnostic.
Can be used by the web API or any other interface.
"""
