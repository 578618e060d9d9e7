"""
TherapyCanvas HTTP gateway: sessions, canvas, saved drawings and the analysis proxy.
"""
