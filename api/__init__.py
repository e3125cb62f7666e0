"""HTTP surface for the invoice filler"""
