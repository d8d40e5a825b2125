# Import pipeline services
