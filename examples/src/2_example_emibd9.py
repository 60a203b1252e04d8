import os
from snprel.genotypes import GenotypeMatrix
from snprel.emibd9 import EMIBD9
from snprel.plot import plot_relatedness_heatmap


#Set paths. emibd9_dir must contain EM_IBD_P (Mac, Linux) or EM_IBD_P.exe (Windows).
data_dir = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)),"..","data","parent_offspring"))
genotypes_path = os.path.join(data_dir,".".join(["genotypes","csv"]))
emibd9_dir = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)),"..","..","EMIBD9"))

genotypes = GenotypeMatrix.from_csv(genotypes_path)

#Run EMIBD9 (use the commented line to run the MPI build through mpirun).
emibd9 = EMIBD9(emibd9_path=emibd9_dir, inbreed=False, iseed=42, timeout=3600)
#emibd9 = EMIBD9(emibd9_path=emibd9_dir, parallel=True, ncores=4)
result = emibd9.run(genotypes)
print(result.processed.sort_values(by="r(1,2)", ascending=False).head(10))
if result.inbreeding is not None:
    print(result.inbreeding)

plot_relatedness_heatmap(result.rel, plot_file=os.path.join(data_dir,".".join(["relatedness","png"])))
