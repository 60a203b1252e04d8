import os
from snprel.genotypes import GenotypeMatrix
from snprel.parent_offspring import ParentOffspringFilter
from snprel.plot import plot_pairwise_counts


#Set paths.
data_dir = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)),"..","data","parent_offspring"))
genotypes_path = os.path.join(data_dir,".".join(["genotypes","csv"]))
loc_metrics_path = os.path.join(data_dir,".".join(["loc_metrics","csv"]))
filtered_path = os.path.join(data_dir,".".join(["genotypes","filtered","csv"]))

#Read the genotypes (individuals as rows) and the locus metrics (RepAvg, rdepth).
genotypes = GenotypeMatrix.from_csv(genotypes_path, loc_metrics_path=loc_metrics_path)

#Remove one individual from each putative parent-offspring pair.
po_filter = ParentOffspringFilter(min_rdepth=12, min_reproducibility=1, iqr_range=1.5, method="best", rm_monomorphs=False, verbosity=3)
result = po_filter.filter(genotypes)
print(result.outlier_df)
result.genotypes.geno_df.to_csv(filtered_path)

#Plot the distribution of pedigree inconsistent loci counts.
plot_pairwise_counts(result, plot_file=os.path.join(data_dir,".".join(["pedigree_inconsistent","png"])))
