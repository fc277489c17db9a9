"""ChainGov governance state machine and HTTP host"""
