from fhegate.blockchain.eth.signers.base import Signer
from fhegate.blockchain.eth.signers.software import InMemorySigner

Signer._SIGNERS = {
    InMemorySigner.uri_scheme(): InMemorySigner,
}
