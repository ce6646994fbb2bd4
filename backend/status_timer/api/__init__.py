# API Layer
