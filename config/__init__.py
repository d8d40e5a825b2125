# Configuration for the import pipeline
