"""oathlib tests"""
