"""
This package contains the archive building pipeline of mkcbt.

The pipeline accepts inputs one at a time, runs external conversions
concurrently up to a ceiling, and writes their results into the archive
strictly in submission order.
"""
